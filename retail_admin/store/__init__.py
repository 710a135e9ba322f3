# Store package
