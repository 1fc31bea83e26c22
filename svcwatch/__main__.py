from svcwatch.main import run

run()
