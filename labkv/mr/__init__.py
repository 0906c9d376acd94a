"""MapReduce coordinator, worker, task protocol, applications and command-line entry points."""