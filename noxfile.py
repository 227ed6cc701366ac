import os

import nox

PYTHON_VERSIONS = ["3.11", "3.12", "3.13"]


def _install(session: nox.Session) -> None:
    """Install the project with its test extra into the nox virtualenv."""
    session.install("-e", ".[test]")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the full suite on the default sqlite database."""
    _install(session)
    session.run("pytest", *session.posargs)


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_postgres(session: nox.Session) -> None:
    """Run the suite against PostgreSQL so the row-locking tests execute.

    Expects a reachable server; connection settings come from the usual
    ``DB_*`` variables (defaults match a local ``postgres`` container).
    """
    _install(session)
    env = {
        "DB_ENGINE": "postgresql",
        "DB_HOST": os.getenv("DB_HOST", "localhost"),
        "DB_PORT": os.getenv("DB_PORT", "5432"),
        "DB_NAME": os.getenv("DB_NAME", "storefront"),
        "DB_USER": os.getenv("DB_USER", "storefront"),
        "DB_PASSWORD": os.getenv("DB_PASSWORD", "storefront-pass"),
    }
    session.run("pytest", "-rs", *session.posargs, env=env)


@nox.session(python=PYTHON_VERSIONS[-1])
def tests_domain(session: nox.Session) -> None:
    """Run the database-free domain tests only."""
    _install(session)
    session.run(
        "pytest",
        "web/apps/orders/tests/test_domain_service.py",
        "web/apps/orders/tests/test_lifecycle.py",
        "web/apps/notifications/tests/test_dispatcher.py",
    )
