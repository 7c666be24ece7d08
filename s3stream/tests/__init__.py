"""
S3 Streaming Client Tests

Run:
    pytest s3stream/tests/ -v
"""
