"""
kusari-uploader: upload files to a Kusari tenant and check uploaded SBOMs
against the tenant's blocked-package list.
"""

__version__ = "0.1.0"
