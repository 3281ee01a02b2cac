"""DevSource blog/portfolio platform - Backend.

A small JSON API behind the DevSource frontend:
- User and admin accounts (JWT bearer tokens, hashed passwords).
- Blog posts with like/dislike voting.
- Portfolio project listings (admin-managed).
- Profile pictures hosted on Cloudinary.

See SPEC_FULL.md for the route table and configuration.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
