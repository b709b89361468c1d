"""
folderview: Browse, view, upload and download server-local folders over HTTP
Built with FastAPI + Uvicorn
"""

__version__ = "1.0.0"
__author__ = "folderview"
__description__ = "Lightweight folder browser and file transfer server"
