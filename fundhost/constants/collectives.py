"""Collective types."""

from enum import Enum


class CollectiveType(str, Enum):
    """Kinds of accounts a Collective row can represent."""

    USER = "USER"
    ORGANIZATION = "ORGANIZATION"
    COLLECTIVE = "COLLECTIVE"
    PROJECT = "PROJECT"
    EVENT = "EVENT"
    FUND = "FUND"
