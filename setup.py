import os
from setuptools import setup, find_packages


version_file_path = os.path.join(
    os.path.dirname(__file__), "mongoportable", "__version__.py")


with open(version_file_path) as version_file:
    exec(version_file.read())


install_requires = ["sentinels"]

tests_require = ["pytest"]


setup(name="mongoportable",
      classifiers=[
          "Development Status :: 4 - Beta",
          "Intended Audience :: Developers",
          "Operating System :: MacOS :: MacOS X",
          "Operating System :: Microsoft :: Windows",
          "Operating System :: POSIX",
          "Programming Language :: Python :: 3",
          "Programming Language :: Python :: Implementation :: CPython",
          "Programming Language :: Python :: Implementation :: PyPy",
          "Topic :: Database"],
      description="In-memory MongoDB-like document store with update operators, "
                  "upserts and snapshots",
      license="BSD",
      version=__version__,
      packages=find_packages(exclude=["tests"]),
      install_requires=install_requires,
      extras_require={"test": tests_require},
      python_requires=">=3.7",
      scripts=[],
      namespace_packages=[]
      )
