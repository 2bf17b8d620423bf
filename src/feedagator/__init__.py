"""Feedagator — per-user content feeds fed by external sources."""
