"""
tilekit test suite

Structure:
- unit/: geodesy, enumeration, config, throttle, fetcher and store in isolation
- integration/: FastAPI server via TestClient, downloader CLI end to end (HTTP mocked)
"""
