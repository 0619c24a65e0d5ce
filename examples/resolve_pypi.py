"""Resolve requirements against PyPI and print an install order.

Usage::

    python examples/resolve_pypi.py "requests>=2" "rich[jupyter]"

Pass ``-v`` to see each request and every resolution step.
"""

import argparse
import logging

from depresolve import LoggingReporter, PyPIProvider, resolve


def display_resolution(graph):
    """Print pinned packages and dependency graph to stdout."""
    print("\n--- Pinned Packages ---")
    for node in graph:
        print(f"{node.name} {node.version}")

    print("\n--- Dependency Graph ---")
    for node in graph:
        targets = ", ".join(graph.iter_children(node.name))
        print(f"{node.name} -> {targets}")

    print("\n--- Install Order ---")
    for node in graph.iter_install_order():
        print(f"{node.name}=={node.version}")


def main():
    """Resolve requirements as PEP 508 lines against PyPI.

    The requirements are taken as command-line arguments
    and the resolution result will be printed to stdout.
    """
    parser = argparse.ArgumentParser()
    parser.add_argument("requirements", nargs="+", metavar="REQUIREMENT")
    parser.add_argument("--index-url", default="https://pypi.org/")
    parser.add_argument("--timeout", type=float, default=30.0)
    parser.add_argument("-v", "--verbose", action="store_true")
    options = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Create the (reusable) provider.
    provider = PyPIProvider(options.index_url)
    reporter = LoggingReporter()

    # Kick off the resolution process, and get the final result.
    print("Resolving", ", ".join(options.requirements))
    report = resolve(
        options.requirements,
        provider,
        reporter,
        timeout=options.timeout,
    )
    if not report.ok:
        print(report.explain())
        raise SystemExit(1)
    display_resolution(report.graph)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print()
