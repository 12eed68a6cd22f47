from bloodbank import create_app, start_background_jobs

app = create_app()
start_background_jobs(app)
