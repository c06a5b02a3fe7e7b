# matrixci_workflow.py
# Rust crate pipeline: four toolchain channels, nightly allowed to fail,
# fast finish on. Component installs are ordinary setup steps.
from __future__ import annotations

from matrixci.dsl import audit, build, lint, matrix, setup, test
from matrixci.dsl import pipeline as make_pipeline

MSRV = "1.36.0"


def pipeline():
    return make_pipeline(
        "ruma-identifiers",
        setup("Install rustfmt", "rustup component add rustfmt"),
        setup("Install clippy", "rustup component add clippy", skip=MSRV),
        setup("Install cargo-audit", "cargo install --force cargo-audit", only="stable"),
        setup("Generate lockfile", "cargo generate-lockfile"),
        audit("Audit dependencies", "cargo audit", only="stable"),
        lint("Check formatting", "cargo fmt -- --check"),
        lint("Clippy", "cargo clippy --all-targets --all-features -- -D warnings", skip=MSRV),
        build("Build", "cargo build --verbose"),
        test("Test", "cargo test --verbose"),
        channels=matrix(MSRV, "stable", "beta", "nightly").allow_failure("nightly"),
        fast_finish=True,
        mainline="master",
    )
