"""Provision a VPC, public subnet and EC2 instance on AWS through Pulumi."""
