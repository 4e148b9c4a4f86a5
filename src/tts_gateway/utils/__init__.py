"""
Utility Modules for tts-gateway.

    - timeit.py: Stage timing for logs and metrics
"""
