"""Ambient configuration and logging shared by every Lumi subsystem."""
