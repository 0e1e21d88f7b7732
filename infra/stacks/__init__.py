"""CDK Stacks package."""

from stacks.app_stack import AppStack

__all__ = ["AppStack"]
