"""Core shared logic for indicators, signal classification and history.

This package contains pure business logic with no I/O dependencies
(no network access, no persistence). The app package feeds it candles
fetched from the exchange and serves its results.
"""
