"""
Deployment entry points.

Usage:
    python -m deployment.cli eval data/insurance --shift learned --gate-profile rank+cosine
"""
