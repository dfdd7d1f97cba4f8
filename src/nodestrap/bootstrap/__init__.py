"""Bootstrap: runtime probing, dependency reconciliation and service launch."""
