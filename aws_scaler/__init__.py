"""AWS metric sources for KEDA, turning SQS and CloudWatch signals into scaling metrics."""
