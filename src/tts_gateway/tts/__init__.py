"""
Backends, Cache and Credentials.

This package provides everything below the dispatcher:
    - modes.py: TTSMode enumeration
    - backend.py: BaseBackend capability set and registry
    - backends/: Provider adapters (gTTS, eSpeak, Polly, gCloud)
    - cache.py: Fingerprints, Fernet cipher, stores, AudioCache
    - credentials.py: Service account keys and token refresh
    - concurrency.py: SingleFlight
"""
