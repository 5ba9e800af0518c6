"""Perception Layer: the Six Eyes gates and the tools they drive."""

from .six_eyes import PerceptionLayer, domain_tag_for
from .compiler import StaticCompiler, TypeScriptCompiler, CompileOutput
from .browser import HeadlessBrowser, PlaywrightBrowser, PageCapture

__all__ = [
    "PerceptionLayer",
    "domain_tag_for",
    "StaticCompiler",
    "TypeScriptCompiler",
    "CompileOutput",
    "HeadlessBrowser",
    "PlaywrightBrowser",
    "PageCapture",
]
