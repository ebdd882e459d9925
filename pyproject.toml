[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kubetester"
version = "0.1.0"
description = "Tooling for standing up EKS clusters with eksctl and running Kubernetes end-to-end test suites against them"
requires-python = ">=3.11"
dependencies = []
keywords = [
    "kubernetes",
    "eks",
    "eksctl",
    "e2e",
    "ginkgo",
    "kubetest2",
    "testing",
    "cloudwatch",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kubetester-ginkgo = "kubetester.ginkgo:main"
kubetester-multi = "kubetester.multi:main"

[tool.hatch.build.targets.wheel]
packages = ["kubetester"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
