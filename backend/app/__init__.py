"""CryptoPulse application: market data polling, API and side channels."""
