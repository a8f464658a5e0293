# Business logic package
