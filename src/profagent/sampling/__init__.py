from .sampler import Sampler, StackSampler, walk_stack

__all__ = ["Sampler", "StackSampler", "walk_stack"]
