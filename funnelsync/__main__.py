from funnelsync.main import run

run()
