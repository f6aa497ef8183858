"""
Backend wiring for the marketplace functions.

This package holds the settings, the document store and messaging gateway
abstractions, and the singletons that pick the Firestore/FCM or in-memory
implementation for each request.
"""
