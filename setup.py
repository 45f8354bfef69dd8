# setup.py
from setuptools import setup, find_packages

setup(
  name="session_build",
  version="0.1.0",
  packages=find_packages(where="src"),
  package_dir={"":"src"},
  python_requires=">=3.11",
  install_requires=["click", "pydantic>=2"],
  extras_require={"test": ["pytest"]},
  entry_points={
    "console_scripts": [
      "session-build = session_build.cli:main"
    ]
  }
)
