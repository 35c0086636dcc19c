"""
sshprobe Services
"""
