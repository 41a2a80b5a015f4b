"""
Media Transfer Layer.

This package is responsible for fetching the asset: the low-level HTTP
downloader and the job interface the coordinator submits work through.
"""

from .downloader import Downloader
from .jobs import DownloadJobSubmitter

__all__ = ["Downloader", "DownloadJobSubmitter"]
