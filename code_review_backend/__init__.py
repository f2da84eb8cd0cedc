"""Code Review Backend - AI review of local git changes"""

__version__ = "1.0.0"
