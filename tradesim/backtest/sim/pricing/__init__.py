"""Intrabar price path."""

from .intrabar_path import IntrabarPolicy, IntrabarPath, IntrabarPathConfig, PricePoint, Touch, first_touch

__all__ = ["IntrabarPolicy", "IntrabarPath", "IntrabarPathConfig", "PricePoint", "Touch", "first_touch"]
