"""
httpupload: HMAC authenticated HTTP file store for XMPP upload slots
Built with FastAPI + Uvicorn
"""

__version__ = "1.0.0"
__author__ = "httpupload"
__description__ = "HMAC authenticated HTTP upload store"
