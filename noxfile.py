"""Nox sessions for the mod verification bot."""

import nox

nox.options.sessions = ["tests", "lint"]
python_versions = ["3.11", "3.12"]
SOURCES = ["bots", "verifier_bot", "tests", "noxfile.py"]
COVERAGE_ARGS = [
    "--cov=verifier_bot",
    "--cov=bots",
    "--cov-report=term-missing",
    "--cov-report=xml:coverage.xml",
]


@nox.session(python=python_versions)
def tests(session):
    """Run the test suite with coverage."""
    session.install("-e", ".[dev]")
    session.run("pytest", *COVERAGE_ARGS, "--cov-fail-under=85", *session.posargs)


@nox.session(python=python_versions[0])
def lint(session):
    """Run ruff for linting and formatting."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "check", *SOURCES)
    session.run("ruff", "format", "--check", *SOURCES)


@nox.session(python=python_versions[0])
def format_code(session):
    """Format code with ruff."""
    session.install("ruff>=0.1.0")
    session.run("ruff", "format", *SOURCES)
    session.run("ruff", "check", "--fix", *SOURCES)


@nox.session(python=python_versions[0])
def domain(session):
    """Run only the business-rule and store reliability suites."""
    session.install("-e", ".[dev]")
    session.run("pytest", "-v", "tests/domain", "tests/infrastructure")
