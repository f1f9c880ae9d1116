"""Patchbay — a reactive patching workbench for Firmata boards.

Shapes, sliders, switches and sequence blocks are wired together by property
bindings; a change to any object propagates through the graph in one settled
step.  Bridge objects carry values to and from an Arduino-class board over
the Firmata serial protocol.

Quick start::

    import patchbay

    patchbay.run("my-patch/")              # Load, connect bridges, run until Ctrl-C
    patchbay.step("my-patch/", 5.0)        # Advance sequences headlessly, then save

Programmatic use::

    from patchbay import PatchbayConfig, Workbench

    bench = Workbench(PatchbayConfig())
    slider = bench.add("slider")
    circle = bench.add("circle")
    bench.bind(slider.id, circle.id, "diameter")
    bench.apply(slider.id, {"value": 240})

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0-dev"
__all__ = [
    "PatchbayConfig",
    "Workbench",
    "__version__",
    "run",
    "step",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import patchbay`` fast; pyserial and watchfiles load only when a
    workbench is created.
    """
    if name == "PatchbayConfig":
        from patchbay.config import PatchbayConfig

        return PatchbayConfig

    if name == "Workbench":
        from patchbay.app import Workbench

        return Workbench

    if name == "run":
        from patchbay.app import run

        return run

    if name == "step":
        from patchbay.app import step

        return step

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
