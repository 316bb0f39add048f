"""Unified worker runner for SchoolHub's Temporal components.

Each deployed service runs the same image with a different component name
to select which activities that worker exposes.
"""
