from dzzenos_api.main import run

run()
