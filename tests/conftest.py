"""Shared fixtures: the BasicTest program and small hand-built method bodies."""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

BASIC_TEST = """\
class BasicTest{
  public static void foo() {
        int[] a;
        int[] b = new int[3];
        int[] c = new int[10];
        if (b[0] == 1) {
            a = b;
        } else {
            a = c;
        }

    \tint i = 0;
        while (i < 2) {
            a[i] = a[i+1];  // Both indexes safe
            i++;
        }
    }

    public static void bar() {
        int[] a;
        int[] b = new int[3];
        int[] c = new int[10];
        if (b[0] == 1) {
            a = b;
        } else {
            a = c;
        }

\t    int i = 0;
        while (i < 9) {
            a[i] = a[i+1];  // Both indexes potentially unsafe
            i++;
        }
    }

    public static void foo2() {
        int[] a = new int[10];
        int[] b;
        a[1] = 10;
        if (a[1] == 9) {
            b = a;
        }
        b[0] = 1; // b may point to a, Null; access unsafe
    }
}
"""


@pytest.fixture
def basic_test_source() -> str:
    return BASIC_TEST


@pytest.fixture
def basic_test_file(tmp_path) -> Path:
    path = tmp_path / "BasicTest.java"
    path.write_text(BASIC_TEST)
    return path
