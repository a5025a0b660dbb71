"""paycore: payroll calculation engine and payroll run lifecycle service."""

__version__ = "0.1.0"
