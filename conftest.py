pytest_plugins = ["sigconf.pytest_plugin"]
