"""Local and artifact-level vulnerability scanners."""