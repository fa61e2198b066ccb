PROJECT_NAME = "Lumi Agent Core"
API_V1_STR = "/api/v1"
