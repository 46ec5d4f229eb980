"""
Doit file to wrap development workflow commands.
"""

import shutil
from pathlib import Path

from doit.task import Task
from doit.tools import create_folder

PACKAGE = "notegraph"

# artifact output
OUT_PATH = Path("__out__")

# test coverage results
TESTS_PATH = OUT_PATH / "test"
JUNIT_PATH = TESTS_PATH / "junit.xml"
COV_PATH = TESTS_PATH / "cov"
COV_HTML_PATH = COV_PATH / "html"
COV_XML_PATH = COV_PATH / "coverage.xml"

# static analysis results
MYPY_PATH = OUT_PATH / "analysis" / "mypy"

# scratch database for trying out the CLI
SAMPLE_DB_PATH = OUT_PATH / "sample" / "document.db"


def cleanup_dir(output_dir: Path):
    if output_dir.exists():
        shutil.rmtree(output_dir)


def task_pytest() -> Task:
    """
    Run pytest and generate coverage reports.
    """

    args = [
        "pytest",
        f"--cov={PACKAGE}",
        f"--cov-report=html:{COV_HTML_PATH}",
        f"--cov-report=xml:{COV_XML_PATH}",
        f"--junitxml={JUNIT_PATH}",
    ]

    return Task(
        "test",
        actions=[
            (create_folder, [COV_PATH]),
            " ".join(args),
        ],
        targets=[
            f"{COV_HTML_PATH}/index.html",
            COV_XML_PATH,
            JUNIT_PATH,
        ],
        file_dep=[],
        clean=[(cleanup_dir, [COV_PATH])],
    )


def task_format() -> Task:
    """
    Run formatters.
    """

    return Task(
        "format",
        actions=[
            "isort .",
            "black .",
        ],
        targets=[],
        file_dep=[],
    )


def task_analysis() -> Task:
    """
    Run mypy over the package.
    """

    mypy_args = [
        "mypy",
        "--html-report",
        str(MYPY_PATH),
        PACKAGE,
    ]

    return Task(
        "analysis",
        actions=[
            (create_folder, [MYPY_PATH]),
            " ".join(mypy_args),
        ],
        targets=[],
        file_dep=[],
        clean=[(cleanup_dir, [MYPY_PATH])],
    )


def task_sample() -> Task:
    """
    Initialize a scratch database and show its statistics.
    """

    cli = f"{PACKAGE} --db {SAMPLE_DB_PATH}"

    return Task(
        "sample",
        actions=[
            (create_folder, [SAMPLE_DB_PATH.parent]),
            f"{cli} db init",
            f"{cli} db stats",
        ],
        targets=[SAMPLE_DB_PATH],
        file_dep=[],
        clean=[(cleanup_dir, [SAMPLE_DB_PATH.parent])],
    )
