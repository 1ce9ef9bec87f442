"""Exceptions raised by the generation pipeline."""


class PrerenderError(Exception):
    """Base class for prerender errors."""


class FatalSetupError(PrerenderError):
    """A condition that aborts the whole run."""


class MissingSourceError(FatalSetupError):
    """The target catalog could not be located or read."""


class HostStartError(FatalSetupError):
    """The local render host could not bind its port."""


class BrowserLaunchError(FatalSetupError):
    """No browser instance could be launched."""


class NoMatchingTargetError(FatalSetupError):
    """The catalog selection produced no targets."""
