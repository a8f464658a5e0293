# HTTP routers package
