"""
Test suite for the owned-vehicle import backend.
"""
