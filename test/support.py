"""
Shared helpers for the sigil test modules (not a test module itself).

- load(name): import a fixture program from test/programs afresh, so every
  test sees pristine declarations and global option markers.
- application(name, **options): fresh fixture module plus an Application
  over it (prog defaults to the fixture name).
- invoke(app, args): run with captured streams -> (code, stdout, stderr).
- Snapshot(app): capture global option storage after build; restore() puts
  the captured values back between runs.
"""
import importlib
import io

from sigil import Application


def load(name):
    return importlib.reload(importlib.import_module(f"programs.{name}"))


def application(name, /, **options):
    options.setdefault("prog", name)
    module = load(name)
    return module, Application(module, **options)


def invoke(app, args, /):
    output, error = io.StringIO(), io.StringIO()
    code = app.run(args, output=output, error=error)
    return code, output.getvalue(), error.getvalue()


async def invoke_async(app, args, /):
    output, error = io.StringIO(), io.StringIO()
    code = await app.run_async(args, output=output, error=error)
    return code, output.getvalue(), error.getvalue()


class Snapshot:
    """Global option storage captured once, restorable any number of times."""

    def __init__(self, app, /):
        if not app.built:
            app.build()
        self._state = [
            (initializer.owner, initializer.attribute, getattr(initializer.owner, initializer.attribute))
            for initializer in app.initializers
        ]

    def restore(self):
        for owner, attribute, value in self._state:
            setattr(owner, attribute, value)

    def __enter__(self):
        return self

    def __exit__(self, *exception):
        self.restore()
