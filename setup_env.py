#!/usr/bin/env python3
"""Cross-platform setup script for automata_studio.

Usage:
    python setup_env.py

Creates a virtual environment, installs dependencies, and verifies the setup.
"""
import os
import subprocess
import sys


def main():
    root = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(root, ".venv")

    is_windows = sys.platform == "win32"
    if is_windows:
        python = os.path.join(venv_dir, "Scripts", "python.exe")
        pip = os.path.join(venv_dir, "Scripts", "pip.exe")
    else:
        python = os.path.join(venv_dir, "bin", "python")
        pip = os.path.join(venv_dir, "bin", "pip")

    # Step 1: Create venv
    if not os.path.exists(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])
        print(f"  Created: {venv_dir}")
    else:
        print(f"Virtual environment already exists: {venv_dir}")

    # Step 2: Upgrade pip
    print("\nUpgrading pip...")
    subprocess.check_call([python, "-m", "pip", "install", "--upgrade", "pip"],
                          stdout=subprocess.DEVNULL)

    # Step 3: Install package in editable mode with dev dependencies
    print("Installing automata_studio with dev dependencies...")
    subprocess.check_call([pip, "install", "-e", f"{root}[dev]"])

    # Step 4: Smoke test -- build a small automaton and project it
    print("\nRunning smoke test...")
    smoke_test = """
from automata_studio.automaton_model import Automaton, Transition
from automata_studio.automata_store import AutomataStore
from automata_studio.graph_builder import build_elements
from automata_studio.kv_store import MemoryKeyValueStore
store = AutomataStore(MemoryKeyValueStore())
store.create(Automaton(name='smoke', transitions=[Transition('q0', 'a', 'q1')]))
store.set_start_state('smoke', 'q0')
elements = build_elements(store.find_by_name('smoke').value)
print(f'  Built {len(elements)} graph elements')
"""
    result = subprocess.run(
        [python, "-c", smoke_test],
        capture_output=True, text=True, cwd=root,
    )
    if result.returncode != 0:
        print("  Smoke test FAILED:")
        print(f"  {result.stderr.strip()}")
        return 1
    print(result.stdout.strip())

    print("\n" + "=" * 50)
    print("Setup complete!")
    print("=" * 50)
    if is_windows:
        activate = ".venv\\Scripts\\activate"
    else:
        activate = "source .venv/bin/activate"
    print(f"\nTo activate:  {activate}")
    print("To launch:    python -m automata_studio")
    print("Backend:      set AUTOMATA_BACKEND_URL (default http://localhost:8080/)")
    print("To test:      pytest")
    print("Web UI:       http://localhost:8050")
    return 0


if __name__ == "__main__":
    sys.exit(main())
