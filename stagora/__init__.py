"""
Stagora - internship marketplace API.

Companies publish internship posts, students apply with their CV, and
everyone meets in a moderated forum. Everything is stored in MongoDB;
CVs and logos go to S3-compatible object storage through presigned URLs.
"""

__version__ = "1.0.0"
