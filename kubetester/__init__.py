"""Deploy EKS clusters with eksctl and run Kubernetes end-to-end test suites against them."""

__version__ = "0.1.0"